"""PalletFlow HTTP service"""

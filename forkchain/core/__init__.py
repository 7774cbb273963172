"""Ledger core: state, validation and fork-tree management"""

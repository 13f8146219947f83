"""Driver dispatch, live location and the cash ledger"""

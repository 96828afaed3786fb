"""
Billing modules.

- posting: trainer postings, the posting state machine, school rosters
- leave: monthly paid/unpaid leave ledger
- invoice: monthly school invoices and payments
"""

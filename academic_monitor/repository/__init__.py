"""Repository layer: SQL for accounts, academic records, risk summaries and the job queue.

Functions take an open connection and return sqlite3.Row objects; services own transactions.
"""

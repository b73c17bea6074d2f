"""
Adapter layer for the Files Manager.

Contains mode-aware adapters for blob storage (local/S3), the thumbnail job
queue (local/SQS) and the session store.
"""

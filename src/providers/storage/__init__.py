"""MongoDB persistence adapters.

    IFileRecordStore  →  MongoFileRecordStore  (collection ``files``)
    IBlobStore        →  GridFSBlobStore       (GridFS bucket ``uploads``)
    IOCRRecordStore   →  MongoOCRRecordStore   (collection ``ocr_results``)

All three share one ``MongoConnection`` built in src/main.py.
"""

from src.providers.storage.gridfs_blob_store import GridFSBlobStore
from src.providers.storage.mongo_connection import MongoConnection
from src.providers.storage.mongo_file_record_store import MongoFileRecordStore
from src.providers.storage.mongo_ocr_record_store import MongoOCRRecordStore

__all__ = [
    "GridFSBlobStore",
    "MongoConnection",
    "MongoFileRecordStore",
    "MongoOCRRecordStore",
]

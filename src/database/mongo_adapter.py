"""
MongoDB adapter for document-based operations.
Provides identical interface to NoSQLAdapter but uses native MongoDB collections.
"""

import os
import logging
from typing import Dict, Any, List, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from .nosql_adapter import DuplicateDocumentError
from .schemas import DOCUMENT_VALIDATORS, COLLECTION_KEYS

logger = logging.getLogger(__name__)


class MongoAdapter:
    """MongoDB adapter for document-based database operations"""

    def __init__(self, connection_string: Optional[str] = None, client: Optional[MongoClient] = None):
        self.connection_string = connection_string or os.getenv('MONGODB_URI')
        if not self.connection_string and client is None:
            raise ValueError("MongoDB connection string required. Set MONGODB_URI environment variable or pass connection_string")

        self.client = client
        self.db = None
        self._connect()

    def _connect(self) -> None:
        """Establish MongoDB connection"""
        try:
            if self.client is None:
                self.client = MongoClient(self.connection_string, serverSelectionTimeoutMS=5000)

            # Extract database name from connection string
            db_name = 'files_manager'
            if self.connection_string:
                db_name = self.connection_string.rsplit('/', 1)[-1].split('?')[0] or db_name
                if ':' in db_name or '@' in db_name:
                    db_name = 'files_manager'

            self.db = self.client[db_name]
            logger.info(f"Using MongoDB database: {db_name}")

        except ConnectionFailure as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    def _validate_document(self, collection: str, document: Dict[str, Any]) -> None:
        """Validate document against schema"""
        if collection in DOCUMENT_VALIDATORS:
            try:
                DOCUMENT_VALIDATORS[collection](document)
            except Exception as e:
                logger.error(f"Document validation failed for {collection}: {e}")
                raise ValueError(f"Document validation failed: {e}")

    def _key_query(self, collection: str, doc_id: str) -> Dict[str, Any]:
        if collection not in COLLECTION_KEYS:
            raise ValueError(f"Unknown collection: {collection}")
        return {COLLECTION_KEYS[collection]: doc_id}

    def _to_mongo_query(self, collection: str, query: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Map the '_id' alias onto the collection's key field"""
        if collection not in COLLECTION_KEYS:
            raise ValueError(f"Unknown collection: {collection}")
        mongo_query = {}
        for key, value in (query or {}).items():
            if key == '_id':
                mongo_query[COLLECTION_KEYS[collection]] = value
            else:
                mongo_query[key] = value
        return mongo_query

    def init_collections(self) -> None:
        """Initialize MongoDB collections and indexes"""
        try:
            for collection_name, key_field in COLLECTION_KEYS.items():
                self.db[collection_name].create_index([(key_field, ASCENDING)], unique=True)

            self.db['users'].create_index([("email", ASCENDING)], unique=True)
            self.db['files'].create_index([("user_id", ASCENDING), ("parent_id", ASCENDING)])
            self.db['files'].create_index([("is_public", ASCENDING)])
            self.db['thumbnail_jobs'].create_index([("file_id", ASCENDING)])
            self.db['thumbnail_jobs'].create_index([("state", ASCENDING)])
            self.db['sessions'].create_index([("expires_at", ASCENDING)])

            logger.info("MongoDB collections and indexes initialized successfully")

        except PyMongoError as e:
            logger.error(f"Error initializing MongoDB collections: {e}")
            raise

    def ping(self) -> bool:
        """Check that the server answers"""
        try:
            self.client.admin.command('ping')
            return True
        except PyMongoError as e:
            logger.error(f"MongoDB ping failed: {e}")
            return False

    def create_document(self, collection: str, document: Dict[str, Any]) -> str:
        """Create a new document in the collection"""
        if collection not in COLLECTION_KEYS:
            raise ValueError(f"Unknown collection: {collection}")
        self._validate_document(collection, document)
        doc_id = document[COLLECTION_KEYS[collection]]

        try:
            # insert_one mutates its argument with an ObjectId _id
            self.db[collection].insert_one(dict(document))
            logger.info(f"Created document in {collection} with ID: {doc_id}")
            return doc_id

        except DuplicateKeyError as e:
            logger.error(f"Duplicate document in {collection}: {e}")
            raise DuplicateDocumentError(str(e))
        except PyMongoError as e:
            logger.error(f"Error creating document in {collection}: {e}")
            raise

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Get a document by ID"""
        try:
            document = self.db[collection].find_one(self._key_query(collection, doc_id))
            if document:
                # Remove MongoDB's _id field for compatibility with NoSQLAdapter interface
                document.pop('_id', None)
                return document
            return None

        except PyMongoError as e:
            logger.error(f"Error getting document from {collection}: {e}")
            raise

    def update_document(self, collection: str, doc_id: str, document: Dict[str, Any]) -> bool:
        """Replace a document by ID"""
        query = self._key_query(collection, doc_id)
        self._validate_document(collection, document)

        try:
            result = self.db[collection].replace_one(query, dict(document))
            success = result.matched_count > 0

            if success:
                logger.info(f"Updated document in {collection} with ID: {doc_id}")
            else:
                logger.warning(f"No document found to update in {collection} with ID: {doc_id}")

            return success

        except PyMongoError as e:
            logger.error(f"Error updating document in {collection}: {e}")
            raise

    def delete_document(self, collection: str, doc_id: str) -> bool:
        """Delete a document by ID"""
        try:
            result = self.db[collection].delete_one(self._key_query(collection, doc_id))
            success = result.deleted_count > 0

            if success:
                logger.info(f"Deleted document from {collection} with ID: {doc_id}")
            else:
                logger.debug(f"No document found to delete in {collection} with ID: {doc_id}")

            return success

        except PyMongoError as e:
            logger.error(f"Error deleting document from {collection}: {e}")
            raise

    def delete_documents(self, collection: str, query: Dict[str, Any]) -> int:
        """Delete every document matching query"""
        try:
            result = self.db[collection].delete_many(self._to_mongo_query(collection, query))
            return result.deleted_count

        except PyMongoError as e:
            logger.error(f"Error deleting documents from {collection}: {e}")
            raise

    def query_documents(self, collection: str, query: Dict[str, Any], limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        """Query documents with filters, in insertion order"""
        try:
            # ObjectId _ids grow with insertion time
            cursor = (
                self.db[collection]
                .find(self._to_mongo_query(collection, query))
                .sort('_id', ASCENDING)
                .skip(offset)
                .limit(limit)
            )

            documents = []
            for doc in cursor:
                doc.pop('_id', None)
                documents.append(doc)

            return documents

        except PyMongoError as e:
            logger.error(f"Error querying documents from {collection}: {e}")
            raise

    def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the first document matching query"""
        documents = self.query_documents(collection, query, limit=1)
        return documents[0] if documents else None

    def count_documents(self, collection: str, query: Dict[str, Any] = None) -> int:
        """Count documents matching query"""
        try:
            return self.db[collection].count_documents(self._to_mongo_query(collection, query))

        except PyMongoError as e:
            logger.error(f"Error counting documents in {collection}: {e}")
            raise

    def close(self) -> None:
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

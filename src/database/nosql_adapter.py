"""
Unified NoSQL adapter for document-based operations.
Stores JSON documents in SQLite tables, one table per collection, with the same
interface as the MongoDB adapter.
"""

import sqlite3
import json
import logging
from typing import Dict, Any, List, Optional, Tuple
from datetime import datetime
from .schemas import DOCUMENT_VALIDATORS, COLLECTION_KEYS

logger = logging.getLogger(__name__)


class DuplicateDocumentError(ValueError):
    """Raised when a document violates a unique key"""
    pass


# Secondary indexes per collection: (index name, json path, unique)
_INDEXES = {
    'users': [('idx_user_email', '$.email', True)],
    'files': [
        ('idx_file_user_id', '$.user_id', False),
        ('idx_file_parent_id', '$.parent_id', False),
        ('idx_file_is_public', '$.is_public', False),
    ],
    'sessions': [('idx_session_expires_at', '$.expires_at', False)],
    'thumbnail_jobs': [
        ('idx_job_file_id', '$.file_id', False),
        ('idx_job_state', '$.state', False),
    ],
}


class NoSQLAdapter:
    """Unified adapter for document-based database operations"""

    def __init__(self, db_path: str = "files_manager.db"):
        self.db_path = db_path

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with JSON support"""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _table(self, collection: str) -> str:
        if collection not in COLLECTION_KEYS:
            raise ValueError(f"Unknown collection: {collection}")
        return f"{collection}_docs"

    def _validate_document(self, collection: str, document: Dict[str, Any]) -> None:
        """Validate document against schema"""
        if collection in DOCUMENT_VALIDATORS:
            try:
                DOCUMENT_VALIDATORS[collection](document)
            except Exception as e:
                logger.error(f"Document validation failed for {collection}: {e}")
                raise ValueError(f"Document validation failed: {e}")

    def _serialize_document(self, document: Dict[str, Any]) -> str:
        """Serialize document to JSON string"""
        def json_serializer(obj):
            if isinstance(obj, datetime):
                return obj.isoformat()
            raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

        return json.dumps(document, default=json_serializer)

    def _deserialize_document(self, json_str: str) -> Dict[str, Any]:
        """Deserialize JSON string to document"""
        return json.loads(json_str)

    def _build_where(self, collection: str, query: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        """Translate a Mongo-style filter into a WHERE clause over JSON paths"""
        if not query:
            return "", []

        where_clauses = []
        params: List[Any] = []
        key_field = COLLECTION_KEYS[collection]

        for key, value in query.items():
            column = "doc_key" if key in ('_id', key_field) else f"json_extract(document, '$.{key}')"
            if isinstance(value, dict):
                for op, operand in value.items():
                    sql_op = {'$lt': '<', '$lte': '<=', '$gt': '>', '$gte': '>=', '$ne': '!='}.get(op)
                    if sql_op is None:
                        raise ValueError(f"Unsupported query operator: {op}")
                    where_clauses.append(f"{column} {sql_op} ?")
                    params.append(operand)
            elif value is None:
                where_clauses.append(f"{column} IS NULL")
            else:
                where_clauses.append(f"{column} = ?")
                # json_extract yields 1/0 for JSON booleans
                params.append(int(value) if isinstance(value, bool) else value)

        return " WHERE " + " AND ".join(where_clauses), params

    def init_collections(self) -> None:
        """Initialize document collections (tables) and their indexes"""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            for collection in COLLECTION_KEYS:
                table = self._table(collection)
                cursor.execute(f'''
                    CREATE TABLE IF NOT EXISTS {table} (
                        doc_key TEXT PRIMARY KEY,
                        document TEXT NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                ''')
                for index_name, json_path, unique in _INDEXES.get(collection, []):
                    cursor.execute(f'''
                        CREATE {"UNIQUE " if unique else ""}INDEX IF NOT EXISTS {index_name}
                        ON {table}(json_extract(document, '{json_path}'))
                    ''')

            conn.commit()
            logger.info("NoSQL collections initialized successfully")

        except Exception as e:
            logger.error(f"Error initializing collections: {e}")
            raise
        finally:
            conn.close()

    def ping(self) -> bool:
        """Check that the database file is reachable"""
        try:
            conn = self._get_connection()
            try:
                conn.execute("SELECT 1")
            finally:
                conn.close()
            return True
        except sqlite3.Error as e:
            logger.error(f"Database ping failed: {e}")
            return False

    def create_document(self, collection: str, document: Dict[str, Any]) -> str:
        """Create a new document in the collection"""
        table = self._table(collection)
        self._validate_document(collection, document)
        doc_id = document[COLLECTION_KEYS[collection]]

        conn = self._get_connection()
        try:
            conn.execute(
                f"INSERT INTO {table} (doc_key, document) VALUES (?, ?)",
                (doc_id, self._serialize_document(document)),
            )
            conn.commit()
            logger.info(f"Created document in {collection} with ID: {doc_id}")
            return doc_id

        except sqlite3.IntegrityError as e:
            logger.error(f"Duplicate document in {collection}: {e}")
            raise DuplicateDocumentError(str(e))
        except Exception as e:
            logger.error(f"Error creating document in {collection}: {e}")
            raise
        finally:
            conn.close()

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Get a document by ID"""
        table = self._table(collection)
        conn = self._get_connection()
        try:
            row = conn.execute(f"SELECT document FROM {table} WHERE doc_key = ?", (doc_id,)).fetchone()
            if row:
                return self._deserialize_document(row['document'])
            return None

        except Exception as e:
            logger.error(f"Error getting document from {collection}: {e}")
            raise
        finally:
            conn.close()

    def update_document(self, collection: str, doc_id: str, document: Dict[str, Any]) -> bool:
        """Replace a document by ID"""
        table = self._table(collection)
        self._validate_document(collection, document)

        conn = self._get_connection()
        try:
            cursor = conn.execute(f'''
                UPDATE {table}
                SET document = ?, updated_at = CURRENT_TIMESTAMP
                WHERE doc_key = ?
            ''', (self._serialize_document(document), doc_id))
            success = cursor.rowcount > 0
            conn.commit()

            if success:
                logger.info(f"Updated document in {collection} with ID: {doc_id}")
            else:
                logger.warning(f"No document found to update in {collection} with ID: {doc_id}")

            return success

        except Exception as e:
            logger.error(f"Error updating document in {collection}: {e}")
            raise
        finally:
            conn.close()

    def delete_document(self, collection: str, doc_id: str) -> bool:
        """Delete a document by ID"""
        table = self._table(collection)
        conn = self._get_connection()
        try:
            cursor = conn.execute(f"DELETE FROM {table} WHERE doc_key = ?", (doc_id,))
            success = cursor.rowcount > 0
            conn.commit()

            if success:
                logger.info(f"Deleted document from {collection} with ID: {doc_id}")
            else:
                logger.debug(f"No document found to delete in {collection} with ID: {doc_id}")

            return success

        except Exception as e:
            logger.error(f"Error deleting document from {collection}: {e}")
            raise
        finally:
            conn.close()

    def delete_documents(self, collection: str, query: Dict[str, Any]) -> int:
        """Delete every document matching query"""
        table = self._table(collection)
        where, params = self._build_where(collection, query)
        conn = self._get_connection()
        try:
            cursor = conn.execute(f"DELETE FROM {table}{where}", params)
            conn.commit()
            return cursor.rowcount

        except Exception as e:
            logger.error(f"Error deleting documents from {collection}: {e}")
            raise
        finally:
            conn.close()

    def query_documents(self, collection: str, query: Dict[str, Any], limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        """Query documents with filters, in insertion order"""
        table = self._table(collection)
        where, params = self._build_where(collection, query)
        conn = self._get_connection()
        try:
            rows = conn.execute(
                f"SELECT document FROM {table}{where} ORDER BY rowid LIMIT ? OFFSET ?",
                params + [limit, offset],
            ).fetchall()
            return [self._deserialize_document(row['document']) for row in rows]

        except Exception as e:
            logger.error(f"Error querying documents from {collection}: {e}")
            raise
        finally:
            conn.close()

    def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the first document matching query"""
        documents = self.query_documents(collection, query, limit=1)
        return documents[0] if documents else None

    def count_documents(self, collection: str, query: Dict[str, Any] = None) -> int:
        """Count documents matching query"""
        table = self._table(collection)
        where, params = self._build_where(collection, query)
        conn = self._get_connection()
        try:
            result = conn.execute(f"SELECT COUNT(*) as count FROM {table}{where}", params).fetchone()
            return result['count']

        except Exception as e:
            logger.error(f"Error counting documents in {collection}: {e}")
            raise
        finally:
            conn.close()

    def close(self) -> None:
        """Connections are opened per call; nothing to release"""
        pass

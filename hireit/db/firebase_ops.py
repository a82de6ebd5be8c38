import firebase_admin
from firebase_admin import credentials, firestore
import json
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any
from loguru import logger
from pydantic import BaseModel as PydanticBaseModel, ValidationError # Alias Pydantic's BaseModel

from hireit.core.config import settings

class FirebaseManager:
    """
    Firebase Firestore Manager for handling database operations
    """
    _instance = None
    _db = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(FirebaseManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if self._db is None:
            self.initialize_firebase()

    def _read_project_id(self) -> Optional[str]:
        if settings.firebase_project_id:
            return settings.firebase_project_id
        if settings.firebase_config_path.exists():
            with open(settings.firebase_config_path, 'r') as f:
                project_id = json.load(f).get('projectId')
            logger.info(f"Found Firebase project ID: {project_id} from {settings.firebase_config_path}")
            return project_id
        return None

    def initialize_firebase(self):
        """Initialize Firebase Admin SDK"""
        try:
            app = firebase_admin.get_app()
            self._db = firestore.client(app)
            logger.info("Using existing Firebase app")
            return
        except ValueError:
            pass # App doesn't exist, so we need to initialize it

        project_id = self._read_project_id()
        options = {'projectId': project_id} if project_id else None

        try:
            if settings.firebase_credentials_path.exists():
                cred = credentials.Certificate(str(settings.firebase_credentials_path))
                logger.info(f"Initializing Firebase with service account key from {settings.firebase_credentials_path}")
            else:
                cred = credentials.ApplicationDefault()
                logger.info("Initializing Firebase with application default credentials")
            firebase_admin.initialize_app(cred, options)
            self._db = firestore.client()
            logger.info("Firebase Firestore client initialized successfully")
        except Exception as e:
            logger.error(
                f"Could not initialize Firebase: {e}. Place 'service-account-key.json' in the project root, "
                "set HIREIT_FIREBASE_CREDENTIALS_PATH or GOOGLE_APPLICATION_CREDENTIALS."
            )

    def get_db(self):
        """Get Firestore database client"""
        if self._db is None:
            logger.warning("Firestore DB client accessed before initialization or initialization failed.")
        return self._db

class FirestoreBaseModel:
    """
    Firestore operations for the service's collections, adapted for Pydantic.
    """

    def __init__(self):
        self.firebase_manager = FirebaseManager()
        self.db = self.firebase_manager.get_db()

    def _prepare_data_for_firestore(self, data_model: Any) -> Dict[str, Any]:
        """Converts Pydantic model or dict to Firestore-compatible dict."""
        if isinstance(data_model, PydanticBaseModel):
            return data_model.model_dump(mode="json", exclude_unset=True)
        if isinstance(data_model, dict):
            return data_model.copy()
        raise ValueError("Data must be a Pydantic model or a dictionary.")

    def save(self, collection_name: str, data_model: Any, document_id: Optional[str] = None) -> Optional[str]:
        """Save Pydantic model or dictionary to Firestore"""
        if not self.db:
            logger.error("Database not initialized")
            return None

        data = self._prepare_data_for_firestore(data_model)

        now = datetime.now(timezone.utc)
        data['updated_at'] = now
        if not document_id or not self.get(collection_name, document_id): # Set created_at only if new
            data.setdefault('created_at', now)

        try:
            if document_id:
                doc_ref = self.db.collection(collection_name).document(document_id)
                doc_ref.set(data, merge=True) # Creates or updates
                return document_id
            # add() returns a tuple (timestamp, DocumentReference)
            doc_ref = self.db.collection(collection_name).add(data)
            return doc_ref[1].id
        except Exception as e:
            logger.error(f"Error saving to Firestore collection '{collection_name}': {e}")
            return None

    def get(self, collection_name: str, document_id: str, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> Optional[Any]:
        """Get document from Firestore by ID, optionally parsing into a Pydantic model."""
        if not self.db:
            logger.error("Database not initialized")
            return None

        try:
            doc = self.db.collection(collection_name).document(document_id).get()
            if not doc.exists:
                return None
            data = doc.to_dict()
            if pydantic_model:
                return pydantic_model(**data)
            return data
        except Exception as e:
            logger.error(f"Error getting document '{document_id}' from Firestore collection '{collection_name}': {e}")
            return None

    def get_all(self, collection_name: str, limit: Optional[int] = None, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        """Get all documents from a collection, optionally parsing into Pydantic models."""
        if not self.db:
            logger.error("Database not initialized")
            return []

        try:
            collection_ref = self.db.collection(collection_name)
            docs_stream = collection_ref.limit(limit).stream() if limit else collection_ref.stream()
            return self._collect(docs_stream, pydantic_model)
        except Exception as e:
            logger.error(f"Error getting documents from Firestore collection '{collection_name}': {e}")
            return []

    def query(self, collection_name: str, field: str, operator: str, value: Any, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        """Query documents by field, optionally parsing into Pydantic models."""
        if not self.db:
            logger.error("Database not initialized")
            return []

        try:
            docs_stream = self.db.collection(collection_name).where(field, operator, value).stream()
            return self._collect(docs_stream, pydantic_model)
        except Exception as e:
            logger.error(f"Error querying Firestore collection '{collection_name}': {e}")
            return []

    def _collect(self, docs_stream, pydantic_model: Optional[type[PydanticBaseModel]]) -> List[Any]:
        results = []
        for doc in docs_stream:
            data = {'id': doc.id, **doc.to_dict()}
            if not pydantic_model:
                results.append(data)
                continue
            try:
                results.append(pydantic_model(**data))
            except ValidationError as e:
                # One legacy document must not hide the rest of the result set.
                logger.warning(f"Skipping document '{doc.id}' that does not fit {pydantic_model.__name__}: {e}")
        return results

    def update(self, collection_name: str, document_id: str, updates: Dict[str, Any]) -> bool:
        """Update specific fields in a document."""
        if not self.db:
            logger.error("Database not initialized")
            return False

        try:
            updates_copy = updates.copy() # Avoid modifying the input dict
            updates_copy['updated_at'] = datetime.now(timezone.utc)
            self.db.collection(collection_name).document(document_id).update(updates_copy)
            return True
        except Exception as e:
            logger.error(f"Error updating document '{document_id}' in Firestore collection '{collection_name}': {e}")
            return False

def get_firestore_ops_instance():
    return FirestoreBaseModel()

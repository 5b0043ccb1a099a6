"""
TrashTag backend package.

A FastAPI service for logging community cleanups, awarding points and
ranking users and organizations. Identity, documents and photos live in
managed collaborators (Firebase Auth, Firestore / SQL, S3 / Firebase
Storage) with in-memory stand-ins for development and tests.
"""

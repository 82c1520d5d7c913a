"""
Services package.

Engine:
- detection.py - DetectionOrchestrator (faces and photo status)
- recognition.py - RecognitionMatcher (search, overlap binding, review tiers)
- assignment.py - IdentityCommitService (person + face + template as one unit)
- reconciler.py - ConsistencyReconciler (reassign, deletions, drift audit)
- templates.py - best-effort vs fail-hard template helpers

Application:
- photos.py - PhotoService (photo records, detection -> recognition pipeline)
- people.py - PeopleService (people CRUD)
- database/ - asyncpg PostgresClient
"""

"""
HelpingHand household service.

Shopping lists, cleaning reminders, doctor appointments, contacts and
household membership backed by a local SQL store and Firestore, exposed
through per-screen view-models and a FastAPI application.
"""

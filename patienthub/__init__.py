"""
PatientHub

FastAPI back end for osteopathy practice management: patients,
appointments, invoicing and cabinets, with health data (HDS) migrated out
of the cloud database into encrypted local storage.
"""

__version__ = "1.0.0"

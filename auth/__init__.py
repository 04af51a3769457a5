"""auth/ -- Accounts, credentials and password reset for AccountHub.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and store/.
It does NOT import from api/ or live/.
api/ and live/ import from auth/, not the other way around.
"""

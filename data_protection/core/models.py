"""
Models module for the data protection app.

The app defines no models of its own; this module lets Django register the
``core`` app's models (such as the test models) when building the database.
"""

"""Gig CSV importer: reconcile a tabular file of gigs against existing records
and commit it as one undoable import batch."""

__version__ = "0.1.0"

"""
Services package.

External collaborators: storage, identity and push delivery. Import from
the subpackages directly (piggybank.services.storage, .push, .identity).
"""

"""Domain layer for cardledger.

Entities, errors and the pure engines live beside the services
(``cardledger.domain.card``, ``cardledger.domain.movement``, ...); import
them from their modules.
"""

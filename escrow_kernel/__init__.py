"""
Escrow Kernel - bid lifecycle and escrow settlement engine

A transactional core for competitive bidding marketplaces with:
- Bid submission against open quotations
- Exactly-once awarding under concurrent writers
- Commission-adjusted settlement prices
- Escrow hold with timed release and operator disbursement
- Advisory dispute tracking
- Append-only audit trail
"""

__version__ = "0.1.0"

"""
Acta verification workflow.
Drills from a championship down to one match and approves its acta only when
it is anchored to the integrity ledger and its scanned files are present.
"""

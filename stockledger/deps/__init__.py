# Marks `stockledger.deps` as a real Python package so imports like
# `from stockledger.deps.auth import require_api_key` work reliably.

"""Read API exposing the reconciled dashboard snapshot."""

"""Services layered over the artifact store."""

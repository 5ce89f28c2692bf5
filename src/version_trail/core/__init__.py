"""Version history engine: snapshot model, store, diff, reification and audit trail."""

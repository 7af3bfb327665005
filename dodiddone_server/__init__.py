"""DoDidDone backend: password auth and per-user task storage over HTTP."""

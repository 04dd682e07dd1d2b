"""Backend proxy that forwards dashboard auth and care data calls to the Nanit API."""

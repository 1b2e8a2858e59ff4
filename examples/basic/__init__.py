"""Example plugin serving two services on one server."""

"""HTTP routers mounted by :func:`taskflow.main.create_app`."""

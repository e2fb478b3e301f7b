"""HTTP routers of the CropWatch API."""

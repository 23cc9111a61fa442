"""HTTP layer shared by the domain routers."""

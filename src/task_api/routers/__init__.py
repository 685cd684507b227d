"""HTTP routers for tasks, maintenance and public object access."""

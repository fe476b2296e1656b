"""Settlement citizenship of a company and its employees."""

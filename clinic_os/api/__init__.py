"""REST API for the ClinicOS scheduling engine."""

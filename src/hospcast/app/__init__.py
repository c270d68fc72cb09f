"""Dashboard session state and orchestration."""

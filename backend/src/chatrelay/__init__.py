"""Chat view host and conversation orchestrator."""

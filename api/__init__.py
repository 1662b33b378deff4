"""ProposalPilot HTTP service."""

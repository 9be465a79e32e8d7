"""Live leaderboard and check-in backend for the Catfish Cull."""

"""Compare Bluesky follower/following graphs across accounts."""

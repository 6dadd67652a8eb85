"""Loading simulated observations from disk."""

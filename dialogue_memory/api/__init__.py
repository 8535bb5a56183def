"""HTTP surface over the fact and summary stores."""

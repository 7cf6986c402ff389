"""HTTP surface for the mail sender counter."""

"""Infrastructure services: image codec and change notifications."""

# Infrastructure layer - storage, media index, image codec
"""
Infrastructure layer contains:
- Photo stores (private directory, shared media index)
- Media index repositories
- Image encoding and change notifications

This layer knows nothing about the application services above it.
"""

"""Translation services: language detection, glossary handling, providers and pipeline."""

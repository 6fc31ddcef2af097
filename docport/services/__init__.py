"""Service layer for docport.

Services:
    - ImageAssetResolver: image directory copying and per-document images
    - CrossReferenceRewriter: repairs links after heading-driven renames
    - OutputManager: stylesheet, variables, glossary and master document
    - FlareVariableExtractor: variable sets to AsciiDoc or Writerside includes
    - StaticTocPlanner: TOC plans loaded from YAML or JSON
"""

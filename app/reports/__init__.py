"""
Report composition engine for SEO audit reports.

This package turns an audit snapshot and a branding/section configuration into
a deterministic, paginated document:
- Severity normalization across analyzer vocabularies
- Theme and branding resolution with color normalization
- Section planning with stable page numbers
- Document assembly and PDF rendering
"""

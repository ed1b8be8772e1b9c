from __future__ import annotations

OSV_BUCKET_URL = "https://osv-vulnerabilities.storage.googleapis.com"


def get_osv_zip_url(ecosystem: str) -> str:
	return f"{OSV_BUCKET_URL}/{ecosystem}/all.zip"


def get_osv_vuln_url(vuln_id: str) -> str:
	return f"https://osv.dev/vulnerability/{vuln_id}"


def get_github_advisory_url(ghsa_id: str) -> str:
	return f"https://github.com/advisories/{ghsa_id}"

"""Public S3 bucket detection: anonymous-read probe plus IAM Access Analyzer findings."""

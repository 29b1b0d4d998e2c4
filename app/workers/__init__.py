"""
Queue-driven pipeline workers.

Each worker runs in its own process with its own QueueClient:
- ScraperWorker: consumes scrape missions, persists ScrapedJobs, emits match missions
- MatcherWorker: batches match missions, persists MatchedPairs, emits tailor missions
- TailorWorker: one tailoring mission at a time, persists TailoredResumes
"""

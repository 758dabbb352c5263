"""Domain packages: one folder per business area (schemas, repository, service, router)"""

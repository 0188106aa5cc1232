"""CPU: instruction cycle, MMU with TLB, page cache, protocols and HTTP server."""
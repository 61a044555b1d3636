"""Terminal dashboard and socket client for a running vibecop daemon."""
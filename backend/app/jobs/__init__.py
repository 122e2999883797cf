# Background jobs package init
